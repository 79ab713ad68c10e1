# -*- coding: utf-8 -*-
"""Reading and writing of the `turnkey.xml` metadata that is shipped alongside the libraries."""
import xml.etree.ElementTree as ElementTree

from turnkey_bundler.errors import FatalError


TURNKEY_FILE_NAME = 'turnkey.xml'


class TurnKeyMetadata(object):
    """Describes the contents of a bundle and how to load it.

    Attributes:
        bundled_libraries (:obj:`set` of :obj:`str`): The file names of the bundled libraries.
        system_libraries (:obj:`set` of :obj:`str`): The linkage names of the libraries that are
            referenced, but expected to be provided by the target system.
        load_order (:obj:`list` of :obj:`str`): The bundled file names that must be loaded
            explicitly, in order.
    """
    def __init__(self, bundled_libraries, system_libraries, load_order):
        self.bundled_libraries = set(bundled_libraries)
        self.system_libraries = set(system_libraries)
        self.load_order = list(load_order)

    def __eq__(self, other):
        return isinstance(other, TurnKeyMetadata) and \
            self.bundled_libraries == other.bundled_libraries and \
            self.system_libraries == other.system_libraries and \
            self.load_order == other.load_order

    def __repr__(self):
        return '<TurnKeyMetadata(bundled=%r, system=%r, load_order=%r)>' % (
            sorted(self.bundled_libraries), sorted(self.system_libraries), self.load_order)

    def to_element(self):
        root = ElementTree.Element('turnkey')
        for tag, names in [
            ('bundled', sorted(self.bundled_libraries)),
            ('system', sorted(self.system_libraries)),
            ('load-order', self.load_order),
        ]:
            section = ElementTree.SubElement(root, tag)
            for name in names:
                ElementTree.SubElement(section, 'library').text = name
        return root

    def write_to(self, filename):
        tree = ElementTree.ElementTree(self.to_element())
        with open(filename, 'wb') as f:
            tree.write(f, encoding='utf-8', xml_declaration=True)

    @classmethod
    def read_from(cls, filename):
        try:
            root = ElementTree.parse(filename).getroot()
        except ElementTree.ParseError as error:
            raise FatalError('The "%s" metadata file is not valid XML: %s' % (filename, error))
        if root.tag != 'turnkey':
            raise FatalError('The "%s" file is not a turnkey metadata file.' % filename)

        def names(tag):
            section = root.find(tag)
            if section is None:
                raise FatalError('The "%s" metadata file has no "%s" section.' % (filename, tag))
            return [library.text or '' for library in section.findall('library')]

        return cls(names('bundled'), names('system'), names('load-order'))

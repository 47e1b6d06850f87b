#
# Copyright (c), 2025, SISSA (International School for Advanced Studies).
# All rights reserved.
# This file is distributed under the terms of the MIT License.
# See the file 'LICENSE' in the root directory of the present
# distribution, or http://opensource.org/licenses/MIT.
#
# @author Davide Brunato <brunato@sissa.it>
#
"""
Selection of the schema bundle to use for a (standard version, profile, dialect)
case. The mapping is static configuration: a literal table that follows the
layout of the official schema documentation.
"""
import io
import dataclasses as dc
from collections.abc import Iterator, Mapping
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Optional, Protocol, Union

import elementpath
from xmlschema import XMLResource, XMLResourceError

from invoicexsd.exceptions import InvoiceXsdTypeError, InvoiceXsdValueError, \
    UnknownCaseError
from invoicexsd.logger import logger

CII_1P0_NAMESPACE = 'urn:ferd:CrossIndustryDocument:invoice:1p0'
CII_1P0_RAM_NAMESPACE = \
    'urn:un:unece:uncefact:data:standard:ReusableAggregateBusinessInformationEntity:12'
CII_NAMESPACE = 'urn:un:unece:uncefact:data:standard:CrossIndustryInvoice:100'
CII_RAM_NAMESPACE = \
    'urn:un:unece:uncefact:data:standard:ReusableAggregateBusinessInformationEntity:100'
UBL_INVOICE_NAMESPACE = 'urn:oasis:names:specification:ubl:schema:xsd:Invoice-2'
UBL_CREDIT_NOTE_NAMESPACE = 'urn:oasis:names:specification:ubl:schema:xsd:CreditNote-2'
UBL_CBC_NAMESPACE = 'urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2'


class StandardVersion(Enum):
    """Versions of the ZUGFeRD/Factur-X standard."""
    VERSION1 = '1.0'
    VERSION20 = '2.0'
    VERSION23 = '2.3'


class Profile(Enum):
    """Conformance levels of the standard, each one selecting a schema bundle."""
    MINIMUM = 'Minimum'
    BASIC = 'Basic'
    BASICWL = 'BasicWL'
    COMFORT = 'Comfort'
    EXTENDED = 'Extended'
    XRECHNUNG = 'XRechnung'


class Dialect(Enum):
    """The XML vocabularies used for expressing an invoice."""
    CII = 'CII'
    UBL = 'UBL'


def _enum_member(enum_class: Any, value: Any) -> Any:
    if isinstance(value, enum_class):
        return value
    elif not isinstance(value, str):
        msg = "invalid type {!r} for a {} value"
        raise InvoiceXsdTypeError(msg.format(type(value), enum_class.__name__))

    name = value.strip().lower()
    for member in enum_class:
        if name in (member.value.lower(), member.name.lower()):
            return member

    msg = "{!r} is not a {} value: must be one of {}"
    choices = tuple(member.value for member in enum_class)
    raise InvoiceXsdValueError(msg.format(value, enum_class.__name__, choices))


@dc.dataclass(frozen=True)
class CaseKey:
    """The lookup key of a schema bundle."""
    version: StandardVersion
    profile: Profile
    dialect: Dialect = Dialect.CII

    def __post_init__(self) -> None:
        # Accept also values and names, e.g. CaseKey('2.3', 'minimum', 'cii')
        object.__setattr__(self, 'version', _enum_member(StandardVersion, self.version))
        object.__setattr__(self, 'profile', _enum_member(Profile, self.profile))
        object.__setattr__(self, 'dialect', _enum_member(Dialect, self.dialect))

    def __str__(self) -> str:
        return f'{self.version.value}/{self.profile.value}/{self.dialect.value}'


@dc.dataclass(frozen=True)
class SchemaLocation:
    """
    A directory of schema files. The optional *primary* is the name of the
    main schema file of the bundle, that is compiled first.
    """
    directory: str
    primary: Optional[str] = None


FACTURX_DIR = 'zugferd23de/Schema'
XRECHNUNG_UBL_DIR = 'xRechnung/XRechnung 3.0.1/' \
                    'validator-configuration-xrechnung_3.0.1_2023-09-22/resources/ubl/2.1/xsd'

_V1 = StandardVersion.VERSION1
_V20 = StandardVersion.VERSION20
_V23 = StandardVersion.VERSION23

DEFAULT_CASES: Mapping[CaseKey, SchemaLocation] = {
    CaseKey(_V1, Profile.BASIC): SchemaLocation('zugferd10/Schema', 'ZUGFeRD1p0.xsd'),
    CaseKey(_V1, Profile.COMFORT): SchemaLocation('zugferd10/Schema', 'ZUGFeRD1p0.xsd'),
    CaseKey(_V1, Profile.EXTENDED): SchemaLocation('zugferd10/Schema', 'ZUGFeRD1p0.xsd'),

    CaseKey(_V20, Profile.MINIMUM): SchemaLocation(
        'zugferd20/Schema/BASIC und MINIMUM', 'zugferd2p0_basicwl_minimum.xsd'
    ),
    CaseKey(_V20, Profile.BASIC): SchemaLocation(
        'zugferd20/Schema/BASIC und MINIMUM', 'zugferd2p0_basicwl_minimum.xsd'
    ),
    CaseKey(_V20, Profile.BASICWL): SchemaLocation(
        'zugferd20/Schema/BASIC und MINIMUM', 'zugferd2p0_basicwl_minimum.xsd'
    ),
    CaseKey(_V20, Profile.COMFORT): SchemaLocation(
        'zugferd20/Schema/EN16931', 'zugferd2p0_en16931.xsd'
    ),
    CaseKey(_V20, Profile.EXTENDED): SchemaLocation(
        'zugferd20/Schema/EXTENDED', 'zugferd2p0_extended.xsd'
    ),

    CaseKey(_V23, Profile.MINIMUM): SchemaLocation(
        f'{FACTURX_DIR}/0. Factur-X_1.07.2_MINIMUM', 'Factur-X_1.07.2_MINIMUM.xsd'
    ),
    CaseKey(_V23, Profile.BASICWL): SchemaLocation(
        f'{FACTURX_DIR}/1. Factur-X_1.07.2_BASICWL', 'Factur-X_1.07.2_BASICWL.xsd'
    ),
    CaseKey(_V23, Profile.BASIC): SchemaLocation(
        f'{FACTURX_DIR}/2. Factur-X_1.07.2_BASIC', 'Factur-X_1.07.2_BASIC.xsd'
    ),
    CaseKey(_V23, Profile.COMFORT): SchemaLocation(
        f'{FACTURX_DIR}/3. Factur-X_1.07.2_EN16931', 'Factur-X_1.07.2_EN16931.xsd'
    ),
    CaseKey(_V23, Profile.XRECHNUNG): SchemaLocation(
        f'{FACTURX_DIR}/3. Factur-X_1.07.2_EN16931', 'Factur-X_1.07.2_EN16931.xsd'
    ),
    CaseKey(_V23, Profile.EXTENDED): SchemaLocation(
        f'{FACTURX_DIR}/4. Factur-X_1.07.2_EXTENDED', 'Factur-X_1.07.2_EXTENDED.xsd'
    ),

    CaseKey(_V23, Profile.XRECHNUNG, Dialect.UBL): SchemaLocation(XRECHNUNG_UBL_DIR),
}

# Guideline identifiers written by the serializers, for each version/profile.
GUIDELINE_IDS: Mapping[str, tuple[StandardVersion, Profile]] = {
    'urn:ferd:CrossIndustryDocument:invoice:1p0:basic': (_V1, Profile.BASIC),
    'urn:ferd:CrossIndustryDocument:invoice:1p0:comfort': (_V1, Profile.COMFORT),
    'urn:ferd:CrossIndustryDocument:invoice:1p0:extended': (_V1, Profile.EXTENDED),

    'urn:zugferd.de:2p0:minimum': (_V20, Profile.MINIMUM),
    'urn:zugferd.de:2p0:basicwl': (_V20, Profile.BASICWL),
    'urn:cen.eu:en16931:2017#compliant#urn:zugferd.de:2p0:basic': (_V20, Profile.BASIC),
    'urn:cen.eu:en16931:2017#conformant#urn:zugferd.de:2p0:extended':
        (_V20, Profile.EXTENDED),

    'urn:factur-x.eu:1p0:minimum': (_V23, Profile.MINIMUM),
    'urn:factur-x.eu:1p0:basicwl': (_V23, Profile.BASICWL),
    'urn:cen.eu:en16931:2017#compliant#urn:factur-x.eu:1p0:basic': (_V23, Profile.BASIC),
    'urn:cen.eu:en16931:2017': (_V23, Profile.COMFORT),
    'urn:cen.eu:en16931:2017#conformant#urn:factur-x.eu:1p0:extended':
        (_V23, Profile.EXTENDED),
    'urn:cen.eu:en16931:2017#compliant#urn:xeinkauf.de:kosit:xrechnung_3.0':
        (_V23, Profile.XRECHNUNG),
}

# XPath expressions for the guideline identifier, by root element namespace.
GUIDELINE_PATHS: Mapping[str, tuple[Dialect, str]] = {
    CII_1P0_NAMESPACE: (
        Dialect.CII,
        'rsm:SpecifiedExchangedDocumentContext/'
        'ram:GuidelineSpecifiedDocumentContextParameter/ram:ID'
    ),
    CII_NAMESPACE: (
        Dialect.CII,
        'rsm:ExchangedDocumentContext/ram:GuidelineSpecifiedDocumentContextParameter/ram:ID'
    ),
    UBL_INVOICE_NAMESPACE: (Dialect.UBL, 'cbc:CustomizationID'),
    UBL_CREDIT_NOTE_NAMESPACE: (Dialect.UBL, 'cbc:CustomizationID'),
}


class CaseResolver:
    """
    Maps case keys to schema locations.

    :param table: the mapping from case keys to schema locations, for default \
    the table of the official schema documentation layout.
    :param base_dir: the base directory for relative schema directories.
    """
    def __init__(self, table: Optional[Mapping[CaseKey, Union[SchemaLocation, str]]] = None,
                 base_dir: Union[str, Path] = '.') -> None:
        if table is None:
            table = DEFAULT_CASES

        self.base_dir = Path(base_dir)
        self._table: dict[CaseKey, SchemaLocation] = {}
        for key, location in table.items():
            if not isinstance(key, CaseKey):
                raise InvoiceXsdTypeError(f"invalid case key {key!r}")
            elif isinstance(location, str):
                location = SchemaLocation(location)
            elif not isinstance(location, SchemaLocation):
                raise InvoiceXsdTypeError(f"invalid schema location {location!r}")
            self._table[key] = location

    def __repr__(self) -> str:
        return '%s(base_dir=%r, cases=%d)' % (
            self.__class__.__name__, str(self.base_dir), len(self._table)
        )

    def __contains__(self, key: object) -> bool:
        return key in self._table

    def __len__(self) -> int:
        return len(self._table)

    def keys(self) -> Iterator[CaseKey]:
        yield from self._table

    def resolve(self, key: CaseKey) -> SchemaLocation:
        """
        Returns the schema location of a case, with the directory made absolute
        from the base directory.

        :raises: :exc:`UnknownCaseError` if the key has no mapping.
        """
        try:
            location = self._table[key]
        except KeyError:
            raise UnknownCaseError(f"no schema bundle for case {key}") from None

        directory = self.base_dir.joinpath(location.directory).absolute()
        return SchemaLocation(str(directory), location.primary)


def _read_source(source: Any) -> Any:
    if hasattr(source, 'read'):
        # Read from the current position and restore it
        position = source.tell() if source.seekable() else None
        data = source.read()
        if position is not None:
            source.seek(position)
        if isinstance(data, str):
            data = data.encode('utf-8')
        return io.BytesIO(data)
    elif isinstance(source, bytes):
        return io.BytesIO(source)
    elif isinstance(source, Path):
        return str(source)
    return source


def detect_case(source: Union[str, bytes, Path, BinaryIO]) -> CaseKey:
    """
    Detects the case key of an invoice from the guideline identifier written
    into the document. A stream is read from its current position, that is
    restored after the read.

    :param source: a file path, bytes or a stream containing the invoice.
    :raises: :exc:`UnknownCaseError` if the document is not an invoice or its \
    guideline identifier is unknown.
    """
    try:
        resource = XMLResource(_read_source(source))
    except (XMLResourceError, SyntaxError) as err:
        raise UnknownCaseError(f"can't detect the case of an unparsable document: {err}") from err

    root = resource.root
    namespace = root.tag[1:].split('}')[0] if root.tag.startswith('{') else ''
    try:
        dialect, path = GUIDELINE_PATHS[namespace]
    except KeyError:
        raise UnknownCaseError(f"{root.tag!r} is not an invoice root element") from None

    namespaces = {
        'rsm': namespace,
        'ram': CII_1P0_RAM_NAMESPACE if namespace == CII_1P0_NAMESPACE else CII_RAM_NAMESPACE,
        'cbc': UBL_CBC_NAMESPACE,
    }
    values = [e.text.strip() for e in elementpath.select(root, path, namespaces)
              if e.text is not None]
    for guideline_id in values:
        try:
            version, profile = GUIDELINE_IDS[guideline_id]
        except KeyError:
            continue
        else:
            key = CaseKey(version, profile, dialect)
            logger.debug("Detected case %s from guideline %r", key, guideline_id)
            return key

    raise UnknownCaseError(f"unknown guideline identifier(s) {values!r}")


class InvoiceSerializer(Protocol):
    """
    The interface of an external component that writes a populated invoice
    into a byte stream, in the dialect and profile of a case.
    """
    def save(self, stream: BinaryIO, version: StandardVersion,
             profile: Profile, dialect: Dialect) -> None: ...


def serialize_case(serializer: InvoiceSerializer, key: CaseKey) -> io.BytesIO:
    """Serializes an invoice for a case into a new stream, rewound to start."""
    stream = io.BytesIO()
    serializer.save(stream, key.version, key.profile, key.dialect)
    stream.seek(0)
    return stream


__all__ = ['StandardVersion', 'Profile', 'Dialect', 'CaseKey', 'SchemaLocation',
           'DEFAULT_CASES', 'GUIDELINE_IDS', 'CaseResolver', 'detect_case',
           'InvoiceSerializer', 'serialize_case']

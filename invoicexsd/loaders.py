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
Loading of the schema files of a directory tree. Each file is loaded with the
first load policy that matches its path, or with the default policy.
"""
import dataclasses as dc
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Optional, Union

from lxml import etree as lxml_etree
from xmlschema import XMLResource, XMLResourceError

from invoicexsd.arguments import Argument
from invoicexsd.exceptions import InvoiceXsdTypeError, SchemaAssemblyFailed, \
    SchemaFileUnreadable
from invoicexsd.logger import logger

# Legacy schemas that embed a document type declaration
LEGACY_DTD_SCHEMAS = ('UBL-xmldsig-core-schema-2.1.xsd',)

SourceType = Union[str, XMLResource]


@dc.dataclass(frozen=True)
class SchemaSource:
    """A schema file ready for compilation."""
    path: str
    source: SourceType
    policy: str = 'default'

    @property
    def url(self) -> str:
        if isinstance(self.source, XMLResource):
            return self.source.url or self.path
        return self.path


@dc.dataclass(frozen=True)
class LoadResult:
    """The schema sources of a directory and the files omitted from loading."""
    directory: str
    sources: tuple[SchemaSource, ...]
    skipped: tuple[SchemaFileUnreadable, ...] = ()

    def __len__(self) -> int:
        return len(self.sources)


class LoadPolicy:
    """
    Base class of schema file load policies. A policy is selected by the loader
    when :meth:`matches` returns `True` for a file path.
    """
    name = 'base'

    def __repr__(self) -> str:
        return '%s()' % self.__class__.__name__

    @property
    def key(self) -> tuple[str, ...]:
        """A hashable identity of the policy, used for caching compiled bundles."""
        return self.name,

    def matches(self, path: Path) -> bool:
        raise NotImplementedError()

    def load(self, path: Path) -> SchemaSource:
        """
        Loads a schema file.

        :raises: :exc:`SchemaFileUnreadable` if the file can't be loaded.
        """
        raise NotImplementedError()


class DefaultLoadPolicy(LoadPolicy):
    """
    Hands the file path over to the compiler without parsing it. Errors of
    the file are found and collected by the compiler.
    """
    name = 'default'

    def matches(self, path: Path) -> bool:
        return True

    def load(self, path: Path) -> SchemaSource:
        return SchemaSource(str(path), str(path), self.name)


class DtdDisabledLoadPolicy(LoadPolicy):
    """
    Parses the schema files that have one of the provided name suffixes with
    the document type declaration ignored: no external DTD is loaded, entities
    are not expanded and no network access is done. A file that can't be parsed
    this way is unreadable.

    :param suffixes: the file name suffixes matched by the policy.
    """
    name = 'dtd-disabled'

    def __init__(self, suffixes: Iterable[str] = LEGACY_DTD_SCHEMAS) -> None:
        if isinstance(suffixes, str):
            suffixes = suffixes,
        self.suffixes = tuple(suffixes)
        if not all(isinstance(x, str) for x in self.suffixes):
            raise InvoiceXsdTypeError(f"invalid suffixes {self.suffixes!r}")

    def __repr__(self) -> str:
        return '%s(suffixes=%r)' % (self.__class__.__name__, self.suffixes)

    @property
    def key(self) -> tuple[str, ...]:
        return (self.name, *self.suffixes)

    def matches(self, path: Path) -> bool:
        return str(path).endswith(self.suffixes)

    @staticmethod
    def get_parser() -> lxml_etree.XMLParser:
        return lxml_etree.XMLParser(load_dtd=False, resolve_entities=False, no_network=True)

    def load(self, path: Path) -> SchemaSource:
        try:
            tree = lxml_etree.parse(str(path), self.get_parser())
            resource = XMLResource(tree, base_url=str(path.parent))
        except (XMLResourceError, SyntaxError, OSError) as err:
            raise SchemaFileUnreadable(str(path), str(err)) from err
        else:
            return SchemaSource(str(path), resource, self.name)


class SchemaFileLoader:
    """
    Loader of the schema files of a directory tree.

    :param policies: the load policies, checked in order against each file \
    path. For default only the policy for the known legacy DTD schemas is used.
    :param pattern: the glob pattern of the schema files.
    :param default_policy: the policy for the files not matched by the other \
    policies, for default a :class:`DefaultLoadPolicy` instance.
    """
    pattern: Argument[str] = Argument(str)
    default_policy: Argument[LoadPolicy] = Argument(LoadPolicy)

    def __init__(self, policies: Optional[Sequence[LoadPolicy]] = None,
                 pattern: str = '*.xsd',
                 default_policy: Optional[LoadPolicy] = None) -> None:
        if policies is None:
            policies = DtdDisabledLoadPolicy(),
        elif not all(isinstance(x, LoadPolicy) for x in policies):
            raise InvoiceXsdTypeError(f"invalid load policies {policies!r}")

        self.policies = tuple(policies)
        self.pattern = pattern
        self.default_policy = default_policy or DefaultLoadPolicy()

    def __repr__(self) -> str:
        return '%s(policies=%r, pattern=%r)' % (
            self.__class__.__name__, self.policies, self.pattern
        )

    @property
    def key(self) -> tuple[tuple[str, ...], ...]:
        """A hashable identity of the loader configuration."""
        return (
            (self.pattern,),
            *(policy.key for policy in self.policies),
            self.default_policy.key,
        )

    def get_policy(self, path: Path) -> LoadPolicy:
        for policy in self.policies:
            if policy.matches(path):
                return policy
        return self.default_policy

    def iter_files(self, directory: Union[str, Path]) -> Iterator[Path]:
        """Recursively enumerates, in sorted order, the schema files of a directory."""
        path = Path(directory)
        if not path.is_dir():
            raise SchemaAssemblyFailed("schema directory not found", str(directory))

        logger.debug("Enumerate %r files under %r", self.pattern, str(path))
        yield from sorted(x for x in path.rglob(self.pattern) if x.is_file())

    def load(self, directory: Union[str, Path], primary: Optional[str] = None) -> LoadResult:
        """
        Loads the schema files of a directory. The files that can't be loaded
        are omitted and returned in the *skipped* attribute of the result.

        :param directory: the root directory of the schema files.
        :param primary: optional name of the main schema file, that is moved \
        at the start of the loaded sources.
        """
        files = list(self.iter_files(directory))
        if primary is not None:
            for k, path in enumerate(files):
                if path.name == primary or path.as_posix().endswith(f'/{primary}'):
                    files.insert(0, files.pop(k))
                    break
            else:
                logger.warning("Primary schema %r not found in %r", primary, str(directory))

        sources = []
        skipped = []
        for path in files:
            policy = self.get_policy(path)
            try:
                sources.append(policy.load(path))
            except SchemaFileUnreadable as err:
                logger.warning("Skip schema file %r: %s", str(path), err.reason)
                skipped.append(err)
            else:
                logger.debug("Loaded schema file %r with %r", str(path), policy)

        return LoadResult(str(directory), tuple(sources), tuple(skipped))

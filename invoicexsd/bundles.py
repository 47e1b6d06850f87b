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
Compilation of the schema files of a directory into a schema bundle, and the
cache of compiled bundles.
"""
import warnings
from collections.abc import Hashable
from pathlib import Path
from threading import Lock, RLock
from typing import Optional, Union

from xmlschema import XMLSchemaBase, XMLSchema10, XMLSchema11, XMLSchemaException

from invoicexsd.arguments import Argument, ChoiceArgument
from invoicexsd.exceptions import SchemaAssemblyFailed, SchemaFileUnreadable
from invoicexsd.loaders import SchemaFileLoader, SchemaSource
from invoicexsd.logger import logger, logged

XSD_VERSIONS = ('1.0', '1.1')
STRICTNESS_MODES = ('lax', 'imports', 'strict')

# Serializes the captures of the process-wide warnings state
warnings_lock = RLock()


class SchemaBundle:
    """
    A compiled set of cross-referencing schemas, built from the files of a directory.
    The attributes can be set only once, at initialization.

    :param schema: the main schema instance, whose global maps contain all \
    the schemas of the bundle.
    :param directory: the directory of the schema files.
    :param sources: the URLs of the loaded schema sources.
    :param skipped: the schema files omitted by the loader.
    :param compile_errors: the messages of the errors found compiling the schemas.
    :param compile_warnings: the messages of failed imports and includes.
    """
    schema: Argument[XMLSchemaBase] = Argument(XMLSchemaBase)
    directory: Argument[str] = Argument(str)
    sources: Argument[tuple[str, ...]] = Argument(tuple)
    skipped: Argument[tuple[SchemaFileUnreadable, ...]] = Argument(tuple)
    compile_errors: Argument[tuple[str, ...]] = Argument(tuple)
    compile_warnings: Argument[tuple[str, ...]] = Argument(tuple)

    def __init__(self, schema: XMLSchemaBase,
                 directory: str,
                 sources: tuple[str, ...] = (),
                 skipped: tuple[SchemaFileUnreadable, ...] = (),
                 compile_errors: tuple[str, ...] = (),
                 compile_warnings: tuple[str, ...] = ()) -> None:
        self.schema = schema
        self.directory = directory
        self.sources = sources
        self.skipped = skipped
        self.compile_errors = compile_errors
        self.compile_warnings = compile_warnings

        # Serializes validations that can load schemas from location hints
        self.lock = RLock()

    def __repr__(self) -> str:
        return '%s(directory=%r, sources=%d, errors=%d)' % (
            self.__class__.__name__, self.directory,
            len(self.sources), len(self.compile_errors)
        )

    @property
    def namespaces(self) -> list[str]:
        """The target namespaces of the schemas of the bundle."""
        return sorted({s.target_namespace for s in self.schema.maps.iter_schemas()})

    @property
    def is_complete(self) -> bool:
        """`True` if the bundle has been compiled without errors and warnings."""
        return not self.compile_errors and not self.compile_warnings


class SchemaSetCompiler:
    """
    Compiler of schema bundles, tolerant to the errors of single schema files.

    :param xsd_version: the XSD version of the schemas, '1.0' or '1.1'.
    :param strictness: the tolerance to compile problems. With 'lax' every \
    problem is recorded in the bundle. With 'imports' a bundle with failed \
    imports, includes or sources is not assembled. With 'strict' a bundle \
    with any compile error or warning is not assembled.
    :param loader: the schema file loader, for default a :class:`SchemaFileLoader`.
    """
    xsd_version: ChoiceArgument[str] = ChoiceArgument(str, XSD_VERSIONS)
    strictness: ChoiceArgument[str] = ChoiceArgument(str, STRICTNESS_MODES)
    loader: Argument[SchemaFileLoader] = Argument(SchemaFileLoader)

    def __init__(self, xsd_version: str = '1.0',
                 strictness: str = 'lax',
                 loader: Optional[SchemaFileLoader] = None) -> None:
        self.xsd_version = xsd_version
        self.strictness = strictness
        self.loader = loader or SchemaFileLoader()

    def __repr__(self) -> str:
        return '%s(xsd_version=%r, strictness=%r)' % (
            self.__class__.__name__, self.xsd_version, self.strictness
        )

    @property
    def schema_class(self) -> type[XMLSchemaBase]:
        return XMLSchema10 if self.xsd_version == '1.0' else XMLSchema11

    def cache_key(self, directory: Union[str, Path], primary: Optional[str] = None) \
            -> Hashable:
        """Returns the key of a compiled bundle in a :class:`SchemaBundleCache`."""
        return (str(Path(directory).resolve()), primary,
                self.loader.key, self.xsd_version, self.strictness)

    def _create_schema(self, item: SchemaSource) -> XMLSchemaBase:
        return self.schema_class(item.source, validation='lax', build=False)

    @logged
    def compile(self, directory: Union[str, Path], primary: Optional[str] = None) \
            -> SchemaBundle:
        """
        Compiles the schema files of a directory into a schema bundle.

        :param directory: the root directory of the schema files.
        :param primary: optional name of the main schema file.
        :param loglevel: optional logging level for the compilation.
        :raises: :exc:`SchemaAssemblyFailed` if no schema file is usable or \
        if compile problems are escalated by the strictness.
        """
        directory = str(directory)
        result = self.loader.load(directory, primary)
        if not result.sources:
            raise SchemaAssemblyFailed("no usable schema file", directory)

        schema: Optional[XMLSchemaBase] = None
        source_errors: list[str] = []
        sources: list[str] = []

        with warnings_lock, warnings.catch_warnings():
            warnings.simplefilter("ignore")

            for item in result.sources:
                try:
                    if schema is None:
                        schema = self._create_schema(item)
                        logger.info("Main schema of %r is %r", directory, item.path)
                    else:
                        schema.add_schema(item.source)
                except (XMLSchemaException, SyntaxError, OSError) as err:
                    logger.warning("Can't add schema %r: %s", item.path, err)
                    source_errors.append(f"{item.path}: {err}")
                else:
                    sources.append(item.url)

            if schema is None:
                raise SchemaAssemblyFailed("no schema file can be compiled", directory)

            try:
                schema.build()
            except XMLSchemaException as err:
                # Errors are collected in lax mode, but a build can still fail
                logger.warning("Build of schemas of %r failed: %s", directory, err)
                source_errors.append(str(err))

        compile_errors = list(source_errors)
        compile_warnings = []
        for s in schema.maps.iter_schemas():
            compile_errors.extend(getattr(e, 'message', str(e)) for e in s.all_errors)
            compile_warnings.extend(s.warnings)

        logger.info("Compiled %d schema sources of %r with %d errors and %d warnings",
                    len(sources), directory, len(compile_errors), len(compile_warnings))

        if self.strictness == 'imports':
            if source_errors or compile_warnings:
                problems = source_errors or compile_warnings
                raise SchemaAssemblyFailed(f"incomplete schema bundle: {problems[0]}", directory)
        elif self.strictness == 'strict':
            if compile_errors or compile_warnings:
                problems = compile_errors or compile_warnings
                raise SchemaAssemblyFailed(f"invalid schema bundle: {problems[0]}", directory)

        return SchemaBundle(
            schema=schema,
            directory=directory,
            sources=tuple(sources),
            skipped=result.skipped,
            compile_errors=tuple(compile_errors),
            compile_warnings=tuple(compile_warnings),
        )


class SchemaBundleCache:
    """
    A thread-safe cache of compiled schema bundles. A bundle is compiled at the
    first request for its key and is never invalidated, except by :meth:`clear`.
    Concurrent first requests for the same key compile the bundle only once.
    Failed compilations are not cached.

    :param enabled: if `False` every request compiles a new bundle.
    """
    __slots__ = ('_enabled', '_bundles', '_locks', '_lock')

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        self._bundles: dict[Hashable, SchemaBundle] = {}
        self._locks: dict[Hashable, Lock] = {}
        self._lock = Lock()

    def __repr__(self) -> str:
        return '%s(enabled=%r, bundles=%d)' % (
            self.__class__.__name__, self._enabled, len(self._bundles)
        )

    def __len__(self) -> int:
        return len(self._bundles)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        if value is not self._enabled:
            self._enabled = value
            self.clear()

    def get_bundle(self, directory: Union[str, Path],
                   primary: Optional[str] = None,
                   compiler: Optional[SchemaSetCompiler] = None) -> SchemaBundle:
        """
        Returns the bundle compiled from a directory, compiling it if it's not cached.

        :param directory: the root directory of the schema files.
        :param primary: optional name of the main schema file.
        :param compiler: the compiler to use, whose configuration is part of \
        the cache key. For default a :class:`SchemaSetCompiler` instance.
        """
        if compiler is None:
            compiler = SchemaSetCompiler()
        if not self._enabled:
            return compiler.compile(directory, primary)

        key = compiler.cache_key(directory, primary)
        try:
            return self._bundles[key]
        except KeyError:
            pass

        with self._lock:
            key_lock = self._locks.setdefault(key, Lock())

        with key_lock:
            try:
                return self._bundles[key]
            except KeyError:
                logger.debug("Cache miss for schema bundle of %r", str(directory))
                bundle = self._bundles[key] = compiler.compile(directory, primary)
                return bundle

    def clear(self) -> None:
        with self._lock:
            self._bundles.clear()
            self._locks.clear()


# Process-wide cache, populated on first use of each directory
bundle_cache = SchemaBundleCache()

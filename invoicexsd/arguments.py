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
Write-once configuration arguments of compilers, validators and formatters.
An argument is checked when it's set at initialization and can't be changed
or deleted after.
"""
from collections.abc import Iterable
from typing import Any, cast, Generic, Optional, overload, Type, TypeVar, Union

from invoicexsd.exceptions import InvoiceXsdAttributeError, InvoiceXsdTypeError, \
    InvoiceXsdValueError

ClassInfoType = Union[Type[Any], tuple[Type[Any], ...]]

AT = TypeVar('AT')


class Argument(Generic[AT]):
    """
    A typed write-once argument, stored in a private attribute of the instance.

    :param types: a type or a tuple of types of the admitted values.
    :param nillable: if `True` the argument can be also `None`.
    """
    _name = _owner = ''

    def __init__(self, types: ClassInfoType, nillable: bool = False) -> None:
        self.types = types
        self.nillable = nillable

    def __set_name__(self, owner: Type[Any], name: str) -> None:
        self._owner = owner.__name__
        self._name = name
        self._private_name = f'_{name}'

    def __repr__(self) -> str:
        return '%s(%s.%s)' % (self.__class__.__name__, self._owner, self._name)

    @property
    def qualified_name(self) -> str:
        return f'{self._owner}.{self._name}'

    @overload
    def __get__(self, instance: None, owner: Type[Any]) -> 'Argument[AT]': ...

    @overload
    def __get__(self, instance: Any, owner: Type[Any]) -> AT: ...

    def __get__(self, instance: Optional[Any], owner: Type[Any]) \
            -> Union['Argument[AT]', AT]:
        if instance is None:
            return self
        return cast(AT, getattr(instance, self._private_name))

    def __set__(self, instance: Any, value: Any) -> None:
        if hasattr(instance, self._private_name):
            raise InvoiceXsdAttributeError(f"{self.qualified_name} is already set")
        setattr(instance, self._private_name, self.validated_value(value))

    def __delete__(self, instance: Any) -> None:
        raise InvoiceXsdAttributeError(f"{self.qualified_name} can't be deleted")

    def validated_value(self, value: Any) -> AT:
        if value is None and self.nillable:
            return cast(AT, value)
        elif isinstance(value, bool) and self.types is not bool:
            # a bool is an int, but never a number or an object of the package
            pass
        elif isinstance(value, self.types):
            return cast(AT, value)

        raise InvoiceXsdTypeError(
            f"invalid type {type(value)!r} for {self.qualified_name}"
        )


class BooleanArgument(Argument[bool]):
    """A flag, that admits only `True` or `False`."""

    def __init__(self) -> None:
        super().__init__(bool)


class ChoiceArgument(Argument[AT]):
    """An argument restricted to a set of choices, e.g. an XSD version."""

    def __init__(self, types: ClassInfoType, choices: Iterable[AT]) -> None:
        super().__init__(types)
        self.choices = tuple(choices)

    def validated_value(self, value: Any) -> AT:
        value = super().validated_value(value)
        if value not in self.choices:
            raise InvoiceXsdValueError(
                f"invalid value {value!r} for {self.qualified_name}: "
                f"must be one of {self.choices}"
            )
        return cast(AT, value)


class ValueArgument(Argument[AT]):
    """A numeric argument with a lower bound, e.g. a column width."""

    def __init__(self, types: ClassInfoType, min_value: AT) -> None:
        super().__init__(types)
        self.min_value = min_value

    def validated_value(self, value: Any) -> AT:
        value = super().validated_value(value)
        if value < self.min_value:
            raise InvoiceXsdValueError(
                f"{self.qualified_name} must be greater or equal than {self.min_value}"
            )
        return cast(AT, value)

from __future__ import annotations

import enum
import typing

from typing_extensions import Self

CALLABLE_T = typing.TypeVar("CALLABLE_T", bound=typing.Callable)

__all__ = [
    "FixedIntType",
    "uint_t",
    "uint8_t",
    "uint16_t",
    "uint32_t",
    "enum8",
    "bitmap32",
    "FixedList",
]

NOT_SET = object()


class FixedIntType(int):
    _signed = None
    _bits = None
    _byteorder = "little"

    min_value: int
    max_value: int

    def __new__(cls, *args, **kwargs):
        if cls._signed is None or cls._bits is None:
            raise TypeError(f"{cls} is abstract and cannot be created")

        n = super().__new__(cls, *args, **kwargs)

        # We use `n + 0` to convert `n` into an integer without calling `int()`
        if not cls.min_value <= n + 0 <= cls.max_value:
            raise ValueError(
                f"{int(n)} is not an {'un' if not cls._signed else ''}signed"
                f" {cls._bits} bit integer"
            )

        return n

    def _hex_repr(self):
        return f"0x{{:0{self._bits // 4}X}}".format(int(self))

    def __init_subclass__(cls, signed=NOT_SET, bits=NOT_SET, repr=NOT_SET) -> None:
        super().__init_subclass__()

        if signed is not NOT_SET:
            cls._signed = signed

        if bits is not NOT_SET:
            cls._bits = bits

        if cls._bits is not None and cls._signed is not None:
            if cls._signed:
                cls.min_value = -(2 ** (cls._bits - 1))
                cls.max_value = 2 ** (cls._bits - 1) - 1
            else:
                cls.min_value = 0
                cls.max_value = 2**cls._bits - 1

        if repr == "hex":
            cls.__str__ = cls.__repr__ = cls._hex_repr
        elif repr is not NOT_SET:
            raise ValueError(f"Invalid repr value {repr!r}. Must be hex")

        # XXX: The enum module sabotages pickling if this is inherited
        if "__reduce_ex__" not in cls.__dict__:
            cls.__reduce_ex__ = cls.__reduce_ex__

    def serialize(self) -> bytes:
        return self.to_bytes(self._bits // 8, self._byteorder, signed=self._signed)

    @classmethod
    def deserialize(cls, data: bytes) -> tuple[Self, bytes]:
        byte_size = cls._bits // 8

        if len(data) < byte_size:
            raise ValueError(f"Data is too short to contain {byte_size} bytes")

        r = cls.from_bytes(data[:byte_size], cls._byteorder, signed=cls._signed)
        return r, data[byte_size:]


class uint_t(FixedIntType, signed=False):
    pass


class uint8_t(uint_t, bits=8):
    pass


class uint16_t(uint_t, bits=16):
    pass


class uint32_t(uint_t, bits=32):
    pass


def enum_factory(int_type: CALLABLE_T, undefined: str = "undefined") -> CALLABLE_T:
    """Enum factory. Unknown values become pseudo-members instead of raising."""

    class _NewEnum(int_type, enum.Enum):
        @classmethod
        def _missing_(cls, value):
            new = cls._member_type_.__new__(cls, value)
            new._name_ = f"{undefined}_{new._hex_repr().lower()}"
            new._value_ = value
            return new

        def __format__(self, format_spec: str) -> str:
            if format_spec:
                return self._member_type_.__format__(self, format_spec)

            return object.__format__(repr(self), format_spec)

    return _NewEnum


def bitmap_factory(int_type: CALLABLE_T) -> CALLABLE_T:
    """Flag enum that keeps unknown bits rather than rejecting them."""

    class _NewEnum(int_type, enum.ReprEnum, enum.Flag, boundary=enum.KEEP):
        pass

    return _NewEnum


class enum8(enum_factory(uint8_t)):  # noqa: N801
    pass


class bitmap32(bitmap_factory(uint32_t)):  # noqa: N801
    pass


class FixedList(list):
    _item_type = None
    _length = None

    def __init_subclass__(cls, item_type=None, length=None, **kwargs) -> None:
        super().__init_subclass__(**kwargs)

        if item_type is not None:
            cls._item_type = item_type

        if length is not None:
            cls._length = length

    def serialize(self) -> bytes:
        if len(self) != self._length:
            raise ValueError(
                f"Invalid length for {self!r}: expected {self._length}, got {len(self)}"
            )

        return b"".join([self._item_type(i).serialize() for i in self])

    @classmethod
    def deserialize(cls, data: bytes) -> tuple[Self, bytes]:
        r = cls()
        for _i in range(cls._length):
            item, data = cls._item_type.deserialize(data)
            r.append(item)
        return r, data

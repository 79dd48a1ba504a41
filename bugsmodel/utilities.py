from typing import TypeVar, Iterable
import itertools


def indent(text: str, n: int) -> str:
    """indent a piece of text with spaces"""
    lines = text.split("\n")
    ind = " " * n
    ind_lines = [ind + line for line in lines]
    return "\n".join(ind_lines)


GenericType = TypeVar("GenericType")


def flatten(xss: Iterable[Iterable[GenericType]]) -> list[GenericType]:
    return [x for xs in xss for x in xs]


def unique_stable(xs: Iterable[GenericType]) -> list[GenericType]:
    """remove duplicates, but keep the order of first occurrence"""
    return list(dict.fromkeys(xs))


def index_product(shape: tuple[int, ...]) -> list[tuple[int, ...]]:
    """
    all 1-based index tuples of an array with the given shape,
    in row-major order.

    Example: `index_product((2, 2)) == [(1, 1), (1, 2), (2, 1), (2, 2)]`
    """
    return list(itertools.product(*[range(1, n + 1) for n in shape]))

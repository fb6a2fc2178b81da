from dataclasses import dataclass, field
from typing import List


@dataclass
class Recipe:
    """Domain object representing a stored recipe."""

    id: int
    title: str
    ingredients: str = ""
    instructions: str = ""
    categories: List[str] = field(default_factory=list)


__all__ = ["Recipe"]

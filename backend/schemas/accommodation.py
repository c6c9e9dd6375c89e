"""
schemas/accommodation.py
------------------------
Hotel / lodging candidate. Providers report ratings on either a 0–5 or a
0–10 scale; use `normalized_rating` for any comparison.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from schemas.activity import has_plausible_coordinates


@dataclass
class Accommodation:
    id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: float = 0.0
    price_per_night: float = 0.0
    currency: str = "EUR"
    source: str = ""
    breakfast_included: bool = False

    @property
    def has_valid_coordinates(self) -> bool:
        return has_plausible_coordinates(self.latitude, self.longitude)

    @property
    def coords(self) -> tuple[float, float]:
        return (float(self.latitude or 0.0), float(self.longitude or 0.0))

    @property
    def normalized_rating(self) -> float:
        """Rating on a 0–10 scale. Values ≤ 5 are read as 0–5 and doubled; unrated is 5."""
        if not self.rating:
            return 5.0
        return self.rating * 2 if self.rating <= 5 else self.rating

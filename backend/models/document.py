"""Menu document data models."""
from dataclasses import dataclass


@dataclass
class MenuDocument:
    """Represents the transcribed text of one uploaded menu file."""
    filename: str
    restaurant_name: str
    text: str

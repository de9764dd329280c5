"""
Model domain model - the shared ML model contributors improve
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

# Hard ceiling for any reported accuracy
MAX_ACCURACY = 99.9


def parse_accuracy(value: Optional[str]) -> float:
    """Parse a percentage string like '96.8%' into a float"""
    if not value:
        return 0.0
    return float(value.strip().rstrip('%'))


def format_accuracy(value: float, decimals: int = 1) -> str:
    """Format a float accuracy as a percentage string"""
    return f"{value:.{decimals}f}%"


@dataclass
class Model:
    """
    Model domain model

    One record per project (id 1 is the seeded MNIST classifier).
    Accuracy fields are percentage strings, the way clients display them.
    """
    id: int
    name: str
    description: str
    architecture: str
    code: str
    current_accuracy: str
    parameters: str

    previous_accuracy: Optional[str] = None

    # IPFS references
    code_cid: Optional[str] = None
    weights_cid: Optional[str] = None

    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def accuracy(self) -> float:
        return parse_accuracy(self.current_accuracy)

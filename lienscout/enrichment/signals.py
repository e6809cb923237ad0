"""
Growth-signal detection.

A SignalProvider answers "what recent growth evidence exists for this
company?" with a list of GrowthSignal. Real providers would scrape job boards,
municipal permit databases, contract award feeds, business news and equipment
financing records. SimulatedSignalProvider stands in for them with values
seeded from the company name, so repeated runs agree.
"""
import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from lienscout.core.clock import Clock, system_clock
from lienscout.core.data_types import GrowthSignal
from lienscout.core.models import SignalType
from lienscout.core.utils import normalize_name, seeded_between, seeded_unit, stable_id

logger = logging.getLogger(__name__)


class SignalProvider(ABC):
    """Source of growth signals for a company."""

    @abstractmethod
    async def detect(self, company_name: str, jurisdiction: str) -> List[GrowthSignal]:
        """Return detected signals, newest first."""
        pass


# (hit probability, score band, description template)
DETECTOR_PROFILES: Dict[SignalType, Tuple[float, Tuple[float, float], str]] = {
    SignalType.HIRING: (0.35, (5.0, 15.0), "{company} posted {n} open positions"),
    SignalType.PERMIT: (0.25, (5.0, 12.0), "{company} filed a building permit in {state}"),
    SignalType.CONTRACT: (0.15, (8.0, 20.0), "{company} was awarded a public contract"),
    SignalType.EXPANSION: (0.20, (6.0, 15.0), "{company} announced a new location"),
    SignalType.EQUIPMENT: (0.30, (4.0, 10.0), "{company} financed new equipment"),
}

LOOKBACK_DAYS = 90


class SimulatedSignalProvider(SignalProvider):
    """
    Deterministic stand-in for the five external detectors
    (hiring, permit, contract, expansion, equipment).
    """

    def __init__(self, clock: Clock = system_clock):
        self.clock = clock
        self.detectors: Dict[SignalType, Callable[[str, str, date], Optional[GrowthSignal]]] = {
            signal_type: self._make_detector(signal_type) for signal_type in DETECTOR_PROFILES
        }

    def _make_detector(self, signal_type: SignalType):
        probability, (low, high), template = DETECTOR_PROFILES[signal_type]

        def detect(company_name: str, jurisdiction: str, today: date) -> Optional[GrowthSignal]:
            key = normalize_name(company_name) or company_name
            if seeded_unit(signal_type.value, "hit", key) >= probability:
                return None
            age_days = int(seeded_between(0, LOOKBACK_DAYS, signal_type.value, "age", key))
            openings = 2 + int(seeded_between(0, 18, signal_type.value, "n", key))
            return GrowthSignal(
                id=stable_id("signal", signal_type.value, key),
                type=signal_type,
                description=template.format(company=company_name, state=jurisdiction, n=openings),
                detected_date=today - timedelta(days=age_days),
                score=round(seeded_between(low, high, signal_type.value, "score", key), 1),
                confidence=round(seeded_between(0.5, 0.95, signal_type.value, "conf", key), 2),
            )

        return detect

    async def detect(self, company_name: str, jurisdiction: str) -> List[GrowthSignal]:
        today = self.clock.now().date()
        signals = []
        for detector in self.detectors.values():
            signal = detector(company_name, jurisdiction, today)
            if signal is not None:
                signals.append(signal)
        signals.sort(key=lambda s: s.detected_date, reverse=True)
        return signals

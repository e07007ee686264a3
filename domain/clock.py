"""Clock port - the engine never reads the wall clock directly"""
from abc import ABC, abstractmethod
from datetime import date, datetime


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current timestamp"""
        pass

    def today(self) -> date:
        """Current calendar date"""
        return self.now().date()

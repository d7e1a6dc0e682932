from whack.tests.mocks.connection import MockConnection
from whack.tests.mocks.rng import ScriptedRandom

__all__ = ["MockConnection", "ScriptedRandom"]

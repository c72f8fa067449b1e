"""
Shared fixtures and sample Cadence sources.

No network access: the text-generation capability is always a MagicMock.
"""
import pytest
from unittest.mock import MagicMock

from cadence_qa.config import TelemetryConfig
from cadence_qa.telemetry import PipelineTelemetry


# Clean generic contract: no findings, every function complete, event emitted
GOOD_CONTRACT = """\
access(all) contract Counter {

    access(all) event CounterIncremented(newCount: UInt64)

    access(all) var count: UInt64

    access(all) fun increment() {
        self.count = self.count + 1
        emit CounterIncremented(newCount: self.count)
    }

    access(all) view fun getCount(): UInt64 {
        return self.count
    }

    init() {
        self.count = 0
    }
}
"""

# Same contract with one function missing its access modifier
BARE_FUNCTION_CONTRACT = GOOD_CONTRACT.replace("access(all) fun increment()", "fun increment()")

LEGACY_CONTRACT = """\
pub contract Legacy {
    pub var value: Int

    pub fun getValue(): Int {
        return self.value
    }

    init() {
        self.value = 0
    }
}
"""

# Three auto-fixable defects: bare function, missing body, undefined literal
FIXABLE_CONTRACT = """\
access(all) contract Greeter {

    access(all) event Greeted(message: String)

    access(all) var greeting: String

    fun greet(): String {
        emit Greeted(message: self.greeting)
        return self.greeting
    }

    access(all) fun getGreeting(): String

    access(all) fun fallbackGreeting(): String {
        let message: String = undefined
        return message
    }

    init() {
        self.greeting = "Hello"
    }
}
"""


@pytest.fixture
def telemetry():
    t = PipelineTelemetry(TelemetryConfig(verbose=False))
    yield t
    t.close()


@pytest.fixture
def generator():
    """A TextGenerator stand-in; tests set generate.return_value / side_effect"""
    fake = MagicMock()
    fake.generate = MagicMock(return_value=GOOD_CONTRACT)
    fake.stream = MagicMock(return_value=iter([GOOD_CONTRACT]))
    return fake

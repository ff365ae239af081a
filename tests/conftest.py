import pytest

from calysto_cesil.cesil import CESIL


class FakeKernel(object):
    """Stands in for the MetaKernel: records output and serves input lines."""

    def __init__(self, inputs=()):
        self.inputs = list(inputs)
        self.output = []
        self.errors = []
        self.prompts = []

    def Print(self, *args, end="\n"):
        self.output.append(" ".join(str(arg) for arg in args) + end)

    def Error(self, *args):
        self.errors.append(" ".join(str(arg) for arg in args))

    def raw_input(self, prompt):
        self.prompts.append(prompt)
        if not self.inputs:
            raise EOFError
        return self.inputs.pop(0)

    @property
    def text(self):
        return "".join(self.output)


@pytest.fixture
def kernel():
    return FakeKernel()


@pytest.fixture
def machine(kernel):
    return CESIL(kernel)

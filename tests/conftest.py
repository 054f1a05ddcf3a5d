import os
import sys

# Ensure project root is on sys.path so imports like `from core...` work
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import pytest

from core.graph.client import GraphClient
from fakes import InMemoryGraph, ScriptedTransport


@pytest.fixture
def graph():
    return InMemoryGraph()


@pytest.fixture
def client(graph):
    return GraphClient(graph)


@pytest.fixture
def scripted():
    """
    返回一个工厂：按顺序回放给定响应的 transport 及其 GraphClient。
    """
    def make(*responses):
        transport = ScriptedTransport(*responses)
        return GraphClient(transport), transport
    return make

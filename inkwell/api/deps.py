from fastapi import Request

from inkwell.agents.edit import LangChainEditProvider
from inkwell.agents.local import GraphAgents
from inkwell.store.repository import Repository


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_agents(request: Request) -> GraphAgents:
    return request.app.state.agents


def get_edit_provider() -> LangChainEditProvider:
    return LangChainEditProvider()

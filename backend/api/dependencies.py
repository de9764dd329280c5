"""
Request-scoped access to the shared application services

Everything lives on app.state (see main.create_app) so tests can build an
isolated app with its own store and clients.
"""
from fastapi import Request

from config import Settings
from repositories import MemoryStore
from services.broadcaster import Broadcaster
from services.contribution_engine import ContributionEngine
from services.ipfs_client import IpfsClient


def get_store(request: Request) -> MemoryStore:
    return request.app.state.store


def get_engine(request: Request) -> ContributionEngine:
    return request.app.state.engine


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_ipfs(request: Request) -> IpfsClient:
    return request.app.state.ipfs


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings

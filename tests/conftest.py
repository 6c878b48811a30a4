"""Shared fixtures for the reconciliation tests."""

from __future__ import annotations

import pytest

from rbaccore import AuthorizationContext, InMemoryCatalog, RbacConfig


@pytest.fixture
def config() -> RbacConfig:
    return RbacConfig()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Catalog with one bare schema per example scope."""
    catalog = InMemoryCatalog()
    catalog.add_schema("DEV", "HR", "EMPLOYEES")
    catalog.add_schema("PRD", "SALES", "ORDERS")
    catalog.databases.add("HR_UAT")
    return catalog


@pytest.fixture
def dev_admin() -> AuthorizationContext:
    return AuthorizationContext.issue(principal="pipeline", role="SRF_DEV_DBADMIN")


@pytest.fixture
def prd_admin() -> AuthorizationContext:
    return AuthorizationContext.issue(principal="pipeline", role="SRF_PRD_DBADMIN")

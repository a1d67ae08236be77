"""Shared fixtures: a fake registry and a well-formed collection definition."""

import asyncio
import copy

import pytest
from prpm_collections import ResolutionResult

BASE_COLLECTION = {
    "id": "nextjs-pro",
    "scope": "collection",
    "name": "Next.js Pro",
    "description": "Complete Next.js development stack with React, TypeScript and testing packages.",
    "version": "1.0.0",
    "category": "development",
    "tags": ["nextjs", "react", "typescript", "frontend", "fullstack"],
    "framework": "nextjs",
    "icon": "⚡",
    "official": True,
    "verified": True,
    "packages": [
        {
            "packageId": "react-best-practices",
            "version": "^2.1.0",
            "required": True,
            "reason": "Core React patterns and hooks guidance",
            "installOrder": 1,
        },
        {
            "packageId": "typescript-strict",
            "version": "^1.0.0",
            "required": True,
            "reason": "Strict type checking rules",
            "installOrder": 2,
        },
        {
            "packageId": "nextjs-app-router",
            "version": "^3.0.0",
            "required": True,
            "reason": "App Router conventions",
            "installOrder": 3,
        },
        {
            "packageId": "tailwind-helper",
            "version": "latest",
            "required": False,
            "reason": "Utility-first styling",
            "installOrder": 4,
        },
        {
            "packageId": "vitest-patterns",
            "version": "^0.5.0",
            "required": False,
            "reason": "Unit testing patterns",
            "installOrder": 5,
        },
    ],
}


class FakeRegistry:
    """In-memory registry: every package exists unless listed otherwise."""

    def __init__(self, missing=(), mismatched=(), failing=(), hanging=(), delay: float = 0.0):
        self.missing = set(missing)
        self.mismatched = set(mismatched)
        self.failing = set(failing)
        self.hanging = set(hanging)
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def lookup(self, package_id: str, version: str) -> ResolutionResult:
        self.calls.append((package_id, version))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if package_id in self.hanging:
                await asyncio.sleep(3600)
            if package_id in self.failing:
                raise ConnectionError("registry unavailable")
            if package_id in self.missing:
                return ResolutionResult.not_found()
            if package_id in self.mismatched:
                return ResolutionResult.version_mismatch("available: 0.9.0")
            resolved = "1.0.0" if version == "latest" else version.lstrip("^~")
            return ResolutionResult.found(resolved_version=resolved, name=package_id)
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_collection():
    """Factory for raw collection data; keyword overrides replace top-level fields."""

    def _make(**overrides) -> dict:
        data = copy.deepcopy(BASE_COLLECTION)
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def registry_factory():
    return FakeRegistry

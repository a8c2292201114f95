#!/usr/bin/env python3
"""Backend initialization script for the puzzle engine."""

import sys

import logging
from puzzlecore.config import settings
from puzzlecore.database import GraphAnalyticsStore, CacheManager

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_graph_store():
    """Create the analytics constraints and indexes in Neo4j."""
    logger.info("Initializing Neo4j analytics store...")

    try:
        store = GraphAnalyticsStore()

        if not store.health_check():
            logger.error("Neo4j connection failed")
            return False

        store.create_constraints()
        logger.info("Neo4j constraints and indexes created")
        store.close()
        return True

    except Exception as e:
        logger.error(f"Failed to initialize Neo4j analytics store: {e}")
        return False


def init_cache():
    """Check the statistics cache."""
    logger.info("Initializing Cache...")

    cache = CacheManager()
    try:
        if cache.health_check():
            logger.info(f"Cache connection successful ({settings.redis_url})")
            return True
        logger.error("Cache connection failed")
        return False
    finally:
        cache.close()


def main():
    """Main initialization function."""
    logger.info("Starting backend initialization...")

    components = [("Cache", init_cache)]
    if settings.analytics_backend == "neo4j":
        components.append(("Analytics store", init_graph_store))
    else:
        logger.info(f"Analytics backend is '{settings.analytics_backend}', nothing to initialize")

    success_count = 0
    for name, init_func in components:
        if init_func():
            success_count += 1
            logger.info(f"{name} initialized successfully")
        else:
            logger.error(f"{name} initialization failed")

    if success_count == len(components):
        logger.info("All components initialized successfully")
        return 0

    logger.error(f"{len(components) - success_count} component(s) failed to initialize")
    return 1


if __name__ == "__main__":
    sys.exit(main())

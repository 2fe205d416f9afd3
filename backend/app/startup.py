"""
Application startup validation and initialization.

This module performs startup checks so the service does not begin pricing
carts with broken configuration.
"""

import logging
import sys
from typing import List, Tuple

from sqlalchemy import text
import sqlalchemy as sa

from core.config import settings, validate_production_config
from core.database import engine
from core.error_handling import APIValidationError
from modules.loyalty.services.loyalty_resolver import (
    default_rewards_catalog,
    default_tier_table,
)

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    "catalog_entries",
    "loyalty_accounts",
    "loyalty_points_transactions",
    "reward_redemptions",
    "order_settlements",
]


class StartupValidator:
    """Validates application startup requirements"""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def check_environment_config(self) -> bool:
        """Validate environment configuration"""
        try:
            validate_production_config(settings)
            if settings.environment == "development" and settings.debug:
                self.warnings.append("Debug mode is enabled")
            return True
        except ValueError as e:
            self.errors.append(f"Configuration validation failed: {str(e)}")
            return False

    def check_loyalty_program(self) -> bool:
        """The shipped tier table and rewards catalog must be well formed"""
        try:
            tiers = default_tier_table()
            rewards = default_rewards_catalog()
            logger.info(f"Loyalty program: {len(tiers)} tiers, {len(rewards)} rewards")
            return True
        except APIValidationError as e:
            self.errors.append(f"Loyalty program is invalid: {e.message} {e.details}")
            return False

    def check_database_connection(self) -> bool:
        """Check database connectivity"""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection successful")
            return True
        except Exception as e:
            self.errors.append(f"Database connection failed: {str(e)}")
            return False

    def check_redis_connection(self) -> bool:
        """Check Redis connectivity when carts are stored there"""
        if settings.CART_STORAGE_BACKEND != "redis":
            return True

        from core.redis_config import get_redis_client

        if get_redis_client() is None:
            self.errors.append("Redis cart storage is configured but Redis is unreachable")
            return False
        logger.info("Redis connection successful")
        return True

    def check_required_tables(self) -> bool:
        """Check if required database tables exist"""
        try:
            existing_tables = sa.inspect(engine).get_table_names()
            missing_tables = [t for t in REQUIRED_TABLES if t not in existing_tables]
            if missing_tables:
                self.warnings.append(
                    f"Missing database tables: {', '.join(missing_tables)}"
                )
            return True
        except Exception as e:
            self.warnings.append(f"Could not check database tables: {str(e)}")
            return True

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """Run all validation checks"""
        checks = [
            ("Environment Configuration", self.check_environment_config),
            ("Loyalty Program", self.check_loyalty_program),
            ("Database Connection", self.check_database_connection),
            ("Redis Connection", self.check_redis_connection),
            ("Database Tables", self.check_required_tables),
        ]

        all_passed = True

        for check_name, check_func in checks:
            logger.info(f"Running check: {check_name}")
            try:
                if not check_func():
                    all_passed = False
            except Exception as e:
                self.errors.append(f"{check_name} check failed with error: {str(e)}")
                all_passed = False

        return all_passed, self.errors, self.warnings


def run_startup_checks():
    """Run all startup validation checks"""
    logger.info("=" * 60)
    logger.info("Starting Star Cafe backend")
    logger.info(f"Environment: {settings.environment}")
    logger.info("=" * 60)

    validator = StartupValidator()
    passed, errors, warnings = validator.validate_all()

    if warnings:
        logger.warning("Startup Warnings:")
        for warning in warnings:
            logger.warning(f"  {warning}")

    if errors:
        logger.error("Startup Errors:")
        for error in errors:
            logger.error(f"  {error}")

    if not passed and settings.is_production:
        logger.error("Cannot start in production with errors!")
        sys.exit(1)
    elif not passed:
        logger.warning("Starting in development mode despite errors")
    else:
        logger.info("All startup checks passed")

    return passed, warnings


def configure_startup_logging():
    """Configure logging for startup"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

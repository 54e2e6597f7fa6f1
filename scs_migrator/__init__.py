#!/usr/bin/env python3
"""
Spring Cloud Services 2.x audit and config-server migration tool
"""

__version__ = "0.1.0"

# Build metadata, overwritten by release tooling
__commit__ = "none"
__build_date__ = "unknown"

from scs_migrator.core.classifier import classify
from scs_migrator.core.orchestrator import MigrationPolicy, ServiceMigrator
from scs_migrator.core.scanner import Scanner
from scs_migrator.core.transformer import transform
from scs_migrator.services.gateway import PlatformGateway, command_line_url

#!/usr/bin/env python3
"""
Main execution module for the Spring Cloud Services migration tool
"""

from scs_migrator.cli.commands import main

if __name__ == "__main__":
    main()

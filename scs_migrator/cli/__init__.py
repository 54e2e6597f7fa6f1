"""Command-line interface for the Spring Cloud Services migration tool."""

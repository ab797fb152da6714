"""CLI package for running and querying the BME280 exporter."""

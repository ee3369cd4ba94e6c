"""Supervisor helpers: process launching, configuration loading, and log and status streams."""
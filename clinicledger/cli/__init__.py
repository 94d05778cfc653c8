"""Unified command-line interface for the clinic billing ledger.

Usage:
    cl open --subject CLIENT --owner STAFF [--kind KIND]
    cl charge service|medication|feed|adjust ...
    cl pay <doc> <amount> --method CASH --actor STAFF
    cl close <doc> --actor STAFF
    cl show <doc>
    cl list
    cl report revenue|outstanding|earnings|methods|fees
    cl serve [--port]
"""

"""HTTP API: pipeline entry points and active-run registry"""

"""
Saheli services: the SOS workflow, its gateways and record-store backends
"""

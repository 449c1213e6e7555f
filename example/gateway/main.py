"""
Demo gateway - GuestReservation over in-memory guest and reservation data.

Usage:
    uvicorn example.gateway.main:app --reload

    curl -H "X-Portal: admin" -H "X-Roles: ACCESS" localhost:8000/resources/GuestReservation
    curl "localhost:8000/resources/GuestReservation/G001?portal=distributor&roles=ACCESS"
"""

from pathlib import Path

from bffgraph import Gateway, configure_logging, load_settings

settings = load_settings(Path(__file__).with_name("bffgraph.yaml"))
configure_logging(settings.log_level)

gateway = Gateway(settings)

app = gateway.app

"""Pulumi entry point for the webserver-infra stack."""

from webserver_infra.program import main

main()

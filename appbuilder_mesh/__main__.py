"""Entry point for python -m appbuilder_mesh."""

from appbuilder_mesh.cli import app

app(prog_name="meshctl")

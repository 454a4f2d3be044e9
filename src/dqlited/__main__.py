from dqlited.cli import app

app()

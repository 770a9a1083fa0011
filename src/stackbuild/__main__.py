from stackbuild.cli import app

app()

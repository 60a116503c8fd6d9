from iam_console.cli import app

app()

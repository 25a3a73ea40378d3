from dogfetch.cli import app

app(prog_name="dogfetch")

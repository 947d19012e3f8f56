from markerlint.cli import app

app(prog_name="markerlint")

from saasboard.main import run

run()

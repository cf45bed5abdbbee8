from good_render.cli.main import app

if __name__ == "__main__":
    app()

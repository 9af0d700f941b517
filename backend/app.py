import logging

from nova_backend import create_app

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = create_app()


def main() -> None:
	app.run(host="0.0.0.0", port=app.config.get("PORT", 5000), debug=False)


if __name__ == "__main__":
	main()

from krail_bff.app import configure_logging, create_app
from krail_bff.config import ConfigSources, load_app_config, load_upstream_config


def main() -> None:
    sources = ConfigSources.load()
    app_config = load_app_config(sources)
    configure_logging(app_config.log_level)
    app = create_app(app_config, load_upstream_config(sources))
    app.run(host=app_config.host, port=app_config.port)


if __name__ == "__main__":
    main()

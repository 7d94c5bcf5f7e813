"""scenariosignal module entrypoint."""

from scenariosignal.app.main import main

if __name__ == "__main__":
    main()

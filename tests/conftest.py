pytest_plugins = ["nip34_relay.testing"]

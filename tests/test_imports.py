def test_core_imports():
    from tickwire import Server, ServerConfig, Packet, PacketType

    assert callable(Server)
    assert ServerConfig().max_packets_received_per_tick == 5
    assert Packet is not None
    assert PacketType.CONNECT == 0


def test_import_dispatch():
    from tickwire import ConnectionTable, ListenerRegistry

    assert len(ConnectionTable()) == 0
    assert len(ListenerRegistry()) == 0


def test_import_errors():
    from tickwire import PacketDecodeError, ServerAlreadyStartedError

    assert issubclass(PacketDecodeError, ValueError)
    assert issubclass(ServerAlreadyStartedError, RuntimeError)

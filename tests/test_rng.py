from slay import Client, Server, Simulation, derive_seed
from slay.rng import make_rng


def test_derived_seeds_are_stable_and_distinct():
    assert derive_seed(42, "server") == derive_seed(42, "server")
    assert derive_seed(42, "server") != derive_seed(42, "client")
    assert derive_seed(42, "server") != derive_seed(7, "server")
    assert 0 <= derive_seed(42, "server") < 2**64


def test_missing_seed_is_zero():
    assert make_rng(None).random() == make_rng(0).random()


def test_node_seeds_do_not_depend_on_insertion_order():
    first = Simulation(seed=3)
    first.add_node(Client("client"))
    first.add_node(Server("server"))

    second = Simulation(seed=3)
    second.add_node(Server("server"))
    second.add_node(Client("client"))

    for node_id in ("client", "server"):
        assert first.get_node(node_id).seed == second.get_node(node_id).seed


def test_set_seed_resets_stream():
    server = Server("s")
    server.set_seed(11)
    draws = [server.rng.random() for _ in range(3)]
    server.set_seed(11)
    assert [server.rng.random() for _ in range(3)] == draws

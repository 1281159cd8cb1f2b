"""Network access: chain service client, Tor transport and exchange rates."""

"""

IOCP Gateway

Bridges field devices on serial ports to a single SIOC server over TCP, speaking the
IOCP line protocol on both sides.

- Conduit: a bi-directional byte channel, over a serial port or a socket.
- Connector: knows how to reach an endpoint (a serial device, the TCP server) and opens a conduit to it.
- Endpoint: a named channel the gateway routes between. SerialEndpoint for each device,
  CentralEndpoint for the server. Endpoints frame the incoming bytes into lines, decode them
  and hand the messages to the distributor.
- MessageDistributor: the routing core. Device updates go to the server and to the other devices,
  server updates go to every device that registered the positions, keep-alives are answered.
- ConnectionManager: keeps every connector connected, retrying after the retry period when a
  connection is lost or can't be opened.
- Gateway: reads the configuration and wires all of the above together.


## Threading

Each connection is maintained on its own background thread, which also reads from the connection
and routes what it reads. The distributor serializes routing decisions with one lock, and each
connector serializes its writes. Connection events are queued and published on the main thread.

"""

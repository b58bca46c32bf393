# Pod & Beyond booking core

# actions/appliances.py


class ApplianceController:
    """
    Tracks the on/off state of the controlled appliances (living room light, ceiling fan)
    Every toggle is written to the event log when a logger is attached.
    """

    def __init__(self, logger=None):
        self.logger = logger
        self.light_on = False
        self.fan_on = False

    def _log(self, name, state):
        if self.logger is not None:
            self.logger.log_event("Appliance Toggled", f"{name}={'ON' if state else 'OFF'}")

    def toggle_light(self):
        self.light_on = not self.light_on
        self._log("Light", self.light_on)
        return self.light_on

    def toggle_fan(self):
        self.fan_on = not self.fan_on
        self._log("Fan", self.fan_on)
        return self.fan_on

    def status(self):
        return {'light': self.light_on, 'fan': self.fan_on}

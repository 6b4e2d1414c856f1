class BroadcastError(Exception):
    def __init__(self, channel, event):
        super().__init__()

        self.channel = channel
        self.event = event

    def __str__(self):
        return 'Unable to publish {} on {}'.format(self.event, self.channel)

class UnknownBackend(Exception):
    def __init__(self, name):
        super().__init__()

        self.__name = name

    def __str__(self):
        return 'Unknown broadcast backend {}'.format(self.__name)

class UnregisteredModel(Exception):
    def __init__(self, model_class):
        super().__init__()

        self.__model_class = model_class

    def __str__(self):
        return 'Model {} is not registered for broadcast'.format(self.__model_class.__name__)

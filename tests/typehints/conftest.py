class XT:
    pass


X = XT()

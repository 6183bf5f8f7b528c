import numpy as np
import pytest

from whoareyou.core.errors import ModelLoadError
from whoareyou.providers.torch_classifier import TorchScriptClassifierModel

torch = pytest.importorskip('torch')


class ChannelMeans(torch.nn.Module):
    def __init__(self):
        super().__init__()
        self.input_size = [16, 12]

    def forward(self, x):
        return x.mean(dim=[2, 3])


@pytest.fixture
def scripted_model_path(tmp_path):
    path = tmp_path / 'channel_means.pt'
    torch.jit.script(ChannelMeans()).save(str(path))
    return path


def test_scripted_input_size_and_class_count_are_read_on_load(scripted_model_path):
    model = TorchScriptClassifierModel(str(scripted_model_path), input_size=(224, 224))

    model.load()

    assert model.model_id == 'channel_means'
    assert model.input_size == (16, 12)
    assert model.num_classes == 3


def test_run_feeds_channels_first_to_the_module(scripted_model_path):
    model = TorchScriptClassifierModel(str(scripted_model_path))
    model.load()
    tensor = np.zeros((1, 12, 16, 3), dtype=np.float32)
    tensor[..., 0] = 1.0
    tensor[..., 1] = 2.0
    tensor[..., 2] = 3.0

    scores = model.run(tensor)

    assert scores == pytest.approx([1.0, 2.0, 3.0])


def test_missing_checkpoint_raises_model_load_error(tmp_path):
    model = TorchScriptClassifierModel(str(tmp_path / 'absent.pt'))

    with pytest.raises(ModelLoadError):
        model.load()


def test_corrupt_checkpoint_raises_model_load_error(tmp_path):
    path = tmp_path / 'broken.pt'
    path.write_bytes(b'not a torchscript archive')
    model = TorchScriptClassifierModel(str(path))

    with pytest.raises(ModelLoadError) as exc_info:
        model.load()

    assert 'failed to load face classifier' in exc_info.value.message


def test_run_before_load_raises(scripted_model_path):
    model = TorchScriptClassifierModel(str(scripted_model_path))

    with pytest.raises(ModelLoadError):
        model.run(np.zeros((1, 224, 224, 3), dtype=np.float32))
